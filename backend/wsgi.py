# backend/wsgi.py
from warehouse import create_app

app = create_app()

if __name__ == "__main__":
    # threaded=True keeps /api/sse streams from blocking other requests
    app.run(debug=True, threaded=True)
