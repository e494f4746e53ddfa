# Overview: WSGI entry point for the scratcher ledger service.

from scratchers import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
