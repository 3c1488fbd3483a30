import os

from storefront import create_app

app = create_app(os.getenv("APP_ENV", "development"))


if __name__ == "__main__":
    app.run(
        host="0.0.0.0",
        port=int(os.getenv("PORT", "5000")),
        debug=app.config.get("DEBUG", False),
    )
