import os
import json
import logging

from sqlalchemy import func

from models import db, GenerationSession, Generation

logger = logging.getLogger(__name__)


def ensure_data_directory(path):
    """Create the directory holding the SQLite database if it doesn't exist"""
    try:
        if not os.path.exists(path):
            os.makedirs(path, mode=0o755, exist_ok=True)
            logger.info(f"Created data directory: {path}")
    except OSError as e:
        logger.error(f"Failed to create data directory: {str(e)}", exc_info=True)
        raise


def _isoformat(value):
    return value.isoformat() if value else None


class RecordStore:
    """Persistence for sessions and their generations.

    Every write commits on its own; creating a session and saving its first
    generation are two separate transactions.
    """

    def __init__(self, database=None):
        self.db = database or db

    def create_session(self, keyword, search_results, analysis):
        session = GenerationSession(
            keyword=keyword,
            search_results=search_results,
            analysis=analysis,
        )
        self.db.session.add(session)
        self.db.session.commit()
        logger.info(f"Created session {session.id} for keyword '{keyword}'")
        return session.id

    def save_generation(self, session_id, version, article):
        generation = Generation(
            session_id=session_id,
            version=version,
            title=article['title'],
            meta_description=article['meta_description'],
            content=article['content'],
            tags=json.dumps(article['tags'], ensure_ascii=False),
        )
        self.db.session.add(generation)
        self.db.session.commit()
        logger.info(f"Saved generation v{version} (id={generation.id}) for session {session_id}")
        return generation.id

    def update_feedback(self, generation_id, rating, feedback):
        generation = self.db.session.get(Generation, generation_id)
        if generation is None:
            logger.warning(f"No generation with id {generation_id} to attach feedback to")
            return
        generation.rating = rating
        generation.feedback = feedback
        self.db.session.commit()

    def get_session(self, session_id):
        return self.db.session.get(GenerationSession, session_id)

    def get_generation(self, generation_id):
        return self.db.session.get(Generation, generation_id)

    def get_latest_generation(self, session_id):
        return (
            Generation.query
            .filter_by(session_id=session_id)
            .order_by(Generation.version.desc())
            .first()
        )

    def get_generation_count(self, session_id):
        return (
            self.db.session.query(func.count(Generation.id))
            .filter(Generation.session_id == session_id)
            .scalar()
        ) or 0

    def get_keyword_history(self):
        """Summaries per keyword, most recently generated keyword first."""
        sessions = GenerationSession.query.order_by(GenerationSession.created_at.desc()).all()

        history = {}
        for session in sessions:
            latest = session.generations[-1] if session.generations else None
            entry = {
                'id': session.id,
                'version': latest.version if latest else 1,
                'created_at': _isoformat(session.created_at),
            }

            if session.keyword in history:
                history[session.keyword]['session_count'] += 1
                history[session.keyword]['sessions'].append(entry)
                continue

            history[session.keyword] = {
                'keyword': session.keyword,
                'session_count': 1,
                'latest_title': latest.title if latest else '',
                'latest_date': _isoformat(latest.created_at if latest else session.created_at),
                'sessions': [entry],
            }

        return list(history.values())
