"""Local development entry point.

Usage:
    python run.py

Loads .env (STRIPE_WEBHOOK_SECRET, DATABASE_URL, ...) before building the
app. Point `stripe listen --forward-to localhost:5001/stripe/webhooks`
at it to receive test events.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from payhooks import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
