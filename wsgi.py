# ==============================================================================
# WSGI entry point - for Gunicorn in production
# ==============================================================================
# USAGE:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# PROJECT LAYOUT:
#   repo_root/           <- working directory (on sys.path automatically)
#   ├── wsgi.py          <- this file
#   ├── pyproject.toml
#   └── noble_pos/       <- Python package
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# Settings come from NOBLE_POS_* environment variables (see noble_pos/config.py).
# ==============================================================================

from noble_pos.main import create_app

app = create_app()

# Local development:
#   python wsgi.py
if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
