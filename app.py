import os
import logging
import queue
from flask import Flask, request, jsonify
from pydantic import ValidationError
from dispatcher.config import LOG_DIR
from dispatcher.dispatcher import Dispatcher
from dispatcher.snippet import CodeSnippet
from dispatcher.utils import LOGGER_NAME

LOG_DIR.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    filename=str(LOG_DIR / "sandbox.log"),
    level=logging.DEBUG,
)
app = Flask(__name__)
if __name__ != "__main__":
    # let flask app use gunicorn's logger
    gunicorn_logger = logging.getLogger("gunicorn.error")
    app.logger.handlers = gunicorn_logger.handlers
    app.logger.setLevel(gunicorn_logger.level)
    logging.getLogger().setLevel(gunicorn_logger.level)
    logging.getLogger(LOGGER_NAME).handlers = gunicorn_logger.handlers

    # Allow overriding log level via environment variable
    if os.getenv("SANDBOX_DEBUG", "").lower() == "true":
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)
logger = app.logger

# setup dispatcher
DISPATCHER_CONFIG = os.getenv(
    "DISPATCHER_CONFIG",
    ".config/dispatcher.json.example",
)
DISPATCHER = Dispatcher(DISPATCHER_CONFIG)


@app.post("/api/compiler")
def compile_and_run():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({
            "status": "err",
            "msg": "request body must be a JSON object",
            "data": None,
        }), 400
    try:
        snippet = CodeSnippet.model_validate(body)
    except ValidationError as e:
        logger.debug(f"invalid snippet: {e}")
        return jsonify({
            "status": "err",
            "msg": "invalid code snippet",
            "data": e.errors(include_url=False, include_context=False),
        }), 400

    try:
        result = DISPATCHER.compile_and_run(snippet.sourceCode)
    except queue.Full:
        return (
            jsonify({
                "status": "err",
                "msg": "task queue is full now.\n"
                "please wait a moment and re-send the submission.",
                "data": None,
            }),
            500,
        )
    except RuntimeError as e:
        # dispatcher already stopped
        logger.warning(f"submission refused: {e}")
        return jsonify({
            "status": "err",
            "msg": "sandbox is shutting down, please re-send later.",
            "data": None,
        }), 503
    return jsonify(snippet.with_result(result))


@app.get("/health")
def health():
    return "Java compiler sandbox is running", 200


@app.get("/status")
def status():
    return jsonify({
        "load": DISPATCHER.load(),
        "queueSize": DISPATCHER.pending,
        "maxTaskCount": DISPATCHER.MAX_TASK_COUNT,
        "maxWorkerCount": DISPATCHER.MAX_WORKER_COUNT,
        "running": DISPATCHER.do_run,
    }), 200


# for local debug
# if __name__ == "__main__":
#     app.run(host="0.0.0.0", port=5000, debug=True)
