import json
import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)


def _utcnow():
    return datetime.now(timezone.utc)


class GenerationSession(db.Model):
    __tablename__ = 'sessions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    keyword = db.Column(db.String(200), nullable=False)
    search_results = db.Column(db.Text)
    analysis = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow)

    generations = db.relationship(
        'Generation',
        backref='session',
        order_by='Generation.version',
        lazy=True,
    )

    def search_result_list(self):
        return json.loads(self.search_results) if self.search_results else []


class Generation(db.Model):
    __tablename__ = 'generations'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    session_id = db.Column(db.String(36), db.ForeignKey('sessions.id'), nullable=False)
    version = db.Column(db.Integer, nullable=False)
    title = db.Column(db.Text, nullable=False)
    meta_description = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)
    tags = db.Column(db.Text, nullable=False)  # JSON-encoded list
    rating = db.Column(db.String(10))
    feedback = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow)

    def tag_list(self):
        return json.loads(self.tags) if self.tags else []

    def to_article(self):
        """Return the generated artifact in the shape produced by the LLM handler."""
        return {
            'title': self.title,
            'meta_description': self.meta_description,
            'content': self.content,
            'tags': self.tag_list(),
        }
