import logging

from flask import Flask, render_template, request, jsonify

from config import Config, DATA_DIR, DEFAULT_DATABASE_URI
from models import db
from orchestrator import GenerationOrchestrator, GenerationError
from scraper.web_crawler import WebCrawler
from utils.llm_handler import LLMHandler
from utils.record_store import RecordStore, ensure_data_directory
from utils.status import GenerationStatus

# Configure logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)

if app.config["SQLALCHEMY_DATABASE_URI"] == DEFAULT_DATABASE_URI:
    ensure_data_directory(DATA_DIR)

db.init_app(app)

# Initialize components
generation_status = GenerationStatus()
web_crawler = WebCrawler(
    results_count=app.config["SEARCH_RESULTS_COUNT"],
    timeout=app.config["REQUEST_TIMEOUT"],
)
llm_handler = LLMHandler(
    api_key=app.config["OPENAI_API_KEY"],
    model=app.config["OPENAI_MODEL"],
    language=app.config["CONTENT_LANGUAGE"],
    service=app.config["SERVICE"],
    timeout=app.config["LLM_TIMEOUT"],
)
generator = GenerationOrchestrator(
    store=RecordStore(db),
    crawler=web_crawler,
    llm=llm_handler,
    status=generation_status,
    max_regenerations=app.config["MAX_REGENERATIONS"],
)


@app.route('/')
def index():
    """Render the main page"""
    return render_template(
        'index.html',
        history=generator.history(),
        max_regenerations=app.config["MAX_REGENERATIONS"],
    )


@app.route('/api/action', methods=['POST'])
def action():
    """Generate, regenerate or load an article depending on the request intent"""
    payload = request.get_json(silent=True) or request.form.to_dict()
    if not isinstance(payload, dict):
        logger.warning(f"Rejected request body of type {type(payload).__name__}")
        return jsonify({'error': 'Unknown request.', 'type': 'validation'}), 400
    intent = payload.get('intent')

    try:
        if intent == 'generate':
            result = generator.generate(payload.get('keyword'))
        elif intent == 'regenerate':
            result = generator.regenerate(
                payload.get('session_id'),
                generation_id=payload.get('generation_id'),
                rating=payload.get('rating'),
                feedback=payload.get('feedback'),
            )
        elif intent == 'load':
            result = generator.load(payload.get('session_id'))
        else:
            logger.warning(f"Unknown request intent: {intent}")
            return jsonify({'error': 'Unknown request.', 'type': 'validation'}), 400

        return jsonify(result)

    except GenerationError as e:
        logger.warning(f"{intent} request rejected ({e.kind}): {e.message}")
        return jsonify({'error': e.message, 'type': e.kind}), e.status_code

    except Exception as e:
        error_msg = str(e)
        logger.error(f"{intent} request failed: {error_msg}", exc_info=True)
        return jsonify({
            'error': 'Failed to process request',
            'details': error_msg,
            'type': type(e).__name__
        }), 500


@app.route('/api/status')
def status():
    """Current generation status, polled by the page"""
    return jsonify(generation_status.get_status())


@app.route('/api/history')
def history():
    """Keyword history with the latest title of each keyword"""
    try:
        return jsonify(generator.history())
    except Exception as e:
        logger.error(f"Failed to load keyword history: {str(e)}", exc_info=True)
        return jsonify({
            'error': 'Failed to load history',
            'details': str(e)
        }), 500


with app.app_context():
    db.create_all()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
