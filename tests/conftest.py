import os

# Must be set before the app module reads its configuration
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
from unittest.mock import MagicMock

from models import db
from utils.record_store import RecordStore
from utils.status import GenerationStatus


def make_article(title="Gardening Tips for Beginners", tags=None):
    return {
        'title': title,
        'meta_description': "Everything you need to start a garden.",
        'content': "<h2>Getting started</h2><p>Pick a sunny spot.</p>",
        'tags': tags if tags is not None else ["gardening", "tips", "beginners", "plants", "soil"],
    }


def make_page(index):
    return {
        'url': f"https://example{index}.com/post",
        'title': f"Example post {index}",
        'meta_description': f"Description {index}",
        'headings': [f"H1: Heading {index}"],
        'body_text': f"Body text {index}",
    }


@pytest.fixture
def flask_app():
    from app import app

    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()


@pytest.fixture
def store(flask_app):
    return RecordStore(db)


@pytest.fixture
def status():
    return GenerationStatus()


@pytest.fixture
def crawler():
    crawler = MagicMock()
    crawler.search_and_crawl.side_effect = lambda keyword, progress_callback=None: {
        'keyword': keyword,
        'results': [make_page(i) for i in range(1, 6)],
    }
    return crawler


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.analyze_competitors.return_value = "Competitors use listicle titles and H2 sections."
    llm.generate_seo_content.return_value = make_article()
    llm.regenerate_with_feedback.side_effect = (
        lambda keyword, analysis, generations: make_article(title=f"Revised draft {len(generations) + 1}")
    )
    return llm
