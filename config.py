import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASE_DIR, 'data')
DEFAULT_DATABASE_URI = f"sqlite:///{os.path.join(DATA_DIR, 'seo.db')}"


class Config:
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY") or "seo_blog_generator_key"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URI
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # LLM
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")
    LLM_TIMEOUT = float(os.environ.get("LLM_TIMEOUT", 120))
    CONTENT_LANGUAGE = os.environ.get("CONTENT_LANGUAGE", "English")

    # Search & crawl
    SEARCH_RESULTS_COUNT = int(os.environ.get("SEARCH_RESULTS_COUNT", 5))
    REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", 10))

    # Number of drafts allowed after the first one
    MAX_REGENERATIONS = int(os.environ.get("MAX_REGENERATIONS", 3))

    # Optional service promoted inside generated articles
    SERVICE = {
        'name': os.environ.get("SERVICE_NAME", ""),
        'description': os.environ.get("SERVICE_DESCRIPTION", ""),
        'url': os.environ.get("SERVICE_URL", ""),
    }
