"""
WSGI entry point for the edge router
"""
from dotenv import load_dotenv

load_dotenv()

from edge_router.factory import create_app  # noqa: E402

# Gunicorn/uWSGI compatibility
application = create_app()
app = application

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000, debug=False)
