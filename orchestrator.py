import json
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

RATINGS = ('good', 'bad')


class GenerationError(Exception):
    """Base class for errors reported back to the user as data."""

    kind = 'error'
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidRequestError(GenerationError):
    kind = 'validation'
    status_code = 400


class SessionNotFoundError(GenerationError):
    kind = 'not_found'
    status_code = 404


class EmptySessionError(GenerationError):
    kind = 'not_found'
    status_code = 404


class GenerationBusyError(GenerationError):
    kind = 'busy'
    status_code = 409

    def __init__(self, keyword):
        super().__init__(
            f"Content is currently being generated for '{keyword}'. "
            "Please try again once it finishes."
        )
        self.keyword = keyword


class RegenerationLimitError(GenerationError):
    kind = 'limit_exceeded'
    status_code = 409

    def __init__(self, limit):
        super().__init__(f"Maximum number of regenerations ({limit}) exceeded.")
        self.limit = limit


class NoSearchResultsError(GenerationError):
    kind = 'upstream_empty'
    status_code = 502


class UpstreamError(GenerationError):
    kind = 'upstream_failure'
    status_code = 502


class GenerationOrchestrator:
    """Runs the search, crawl, analyze and generate pipeline for a keyword and
    versions the drafts produced for each session.

    Only one generate or regenerate call may run at a time in the process;
    a second one is rejected rather than queued. Each session holds at most
    ``max_regenerations + 1`` generations.
    """

    def __init__(self, store, crawler, llm, status, max_regenerations=3):
        self.store = store
        self.crawler = crawler
        self.llm = llm
        self.status = status
        self.max_regenerations = max_regenerations

    @contextmanager
    def _single_flight(self, keyword, phase):
        if not self.status.try_acquire(keyword, phase):
            current = self.status.get_status()
            raise GenerationBusyError(current.get('keyword', ''))
        try:
            yield
        finally:
            self.status.clear_status()

    def generate(self, keyword):
        keyword = (keyword or '').strip()
        if not keyword:
            raise InvalidRequestError("Please enter a keyword.")

        with self._single_flight(keyword, 'searching'):
            try:
                crawled_data = self.crawler.search_and_crawl(
                    keyword,
                    progress_callback=lambda phase: self.status.set_status(keyword, phase),
                )
                if not crawled_data['results']:
                    raise NoSearchResultsError(
                        "Could not crawl any search results. Please try again."
                    )

                self.status.set_status(keyword, 'analyzing')
                analysis = self.llm.analyze_competitors(crawled_data)

                self.status.set_status(keyword, 'generating')
                article = self.llm.generate_seo_content(keyword, analysis)

                search_summary = json.dumps(
                    [{'url': page['url'], 'title': page['title']} for page in crawled_data['results']],
                    ensure_ascii=False,
                )
                session_id = self.store.create_session(keyword, search_summary, analysis)
                generation_id = self.store.save_generation(session_id, 1, article)
            except GenerationError:
                raise
            except Exception as e:
                logger.error(f"Generation failed for '{keyword}': {str(e)}", exc_info=True)
                raise UpstreamError(f"An error occurred while generating content: {str(e)}") from e

        return self._result(session_id, generation_id, keyword, 1, analysis, article)

    def regenerate(self, session_id, generation_id=None, rating=None, feedback=None):
        if not session_id:
            raise InvalidRequestError("Session information is missing.")

        rating = rating or 'bad'
        if rating not in RATINGS:
            raise InvalidRequestError(f"Unknown rating: {rating}")

        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found.")

        count = self.store.get_generation_count(session_id)
        if count >= self.max_regenerations + 1:
            raise RegenerationLimitError(self.max_regenerations)

        generation_id = self._displayed_generation_id(session_id, generation_id)

        with self._single_flight(session.keyword, 'generating'):
            # Another regenerate may have finished before the guard was taken
            count = self.store.get_generation_count(session_id)
            if count >= self.max_regenerations + 1:
                raise RegenerationLimitError(self.max_regenerations)
            new_version = count + 1

            try:
                # Kept even if the new version fails to generate
                if generation_id is not None:
                    self.store.update_feedback(generation_id, rating, feedback or '')

                session = self.store.get_session(session_id)

                article = self.llm.regenerate_with_feedback(
                    session.keyword,
                    session.analysis or '',
                    list(session.generations),
                )
                new_generation_id = self.store.save_generation(session_id, new_version, article)
            except GenerationError:
                raise
            except Exception as e:
                logger.error(f"Regeneration failed for session {session_id}: {str(e)}", exc_info=True)
                raise UpstreamError(f"An error occurred while regenerating content: {str(e)}") from e

        return self._result(
            session_id, new_generation_id, session.keyword, new_version, session.analysis, article
        )

    def load(self, session_id):
        if not session_id:
            raise InvalidRequestError("Session information is missing.")

        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError("Session not found.")

        latest = self.store.get_latest_generation(session_id)
        if latest is None:
            raise EmptySessionError("No content has been generated for this session.")

        return self._result(
            session_id, latest.id, session.keyword, latest.version, session.analysis, latest.to_article()
        )

    def history(self):
        return self.store.get_keyword_history()

    def _displayed_generation_id(self, session_id, generation_id):
        if generation_id in (None, ''):
            latest = self.store.get_latest_generation(session_id)
            return latest.id if latest else None

        try:
            generation_id = int(generation_id)
        except (TypeError, ValueError):
            raise InvalidRequestError(f"Invalid generation id: {generation_id}")

        generation = self.store.get_generation(generation_id)
        if generation is None or generation.session_id != session_id:
            raise InvalidRequestError("Generation does not belong to this session.")
        return generation_id

    def _result(self, session_id, generation_id, keyword, version, analysis, article):
        return {
            'session_id': session_id,
            'generation_id': generation_id,
            'keyword': keyword,
            'version': version,
            'analysis': analysis,
            'result': article,
            'max_reached': version > self.max_regenerations,
        }
