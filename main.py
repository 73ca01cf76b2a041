from app.routes.auth import auth_bp
from app.api.customers.customers import customers_bp
from app.api.catalog.services import services_bp
from app.api.quotes.quotes import quotes_bp
from app.api.jobs.jobs import jobs_bp
from app.api.invoices.invoices import invoices_bp
from app.api.payments.webhooks import webhooks_bp
from app.api.profile.profile import profile_bp
from app.api.dashboard.summary import dashboard_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from app.config import Config  # noqa: E402
from app.extensions import db  # noqa: E402
from app.scheduler import init_scheduler  # noqa: E402
from app.services.tenant_cache import tenant_cache  # noqa: E402


def create_app(config_overrides=None):
    print("Starting create_app()")
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        if config_overrides:
            app.config.update(config_overrides)
        print(f"Config loaded: {len(app.config)} items")

        CORS(app)
        db.init_app(app)
        print("Database initialized")

        tenant_cache.configure(
            ttl_seconds=app.config.get("TENANT_CACHE_SECONDS"),
            max_entries=app.config.get("TENANT_CACHE_MAX_ENTRIES"),
        )

        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host
        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")

        blueprints = [
            auth_bp,
            profile_bp,
            dashboard_bp,
            customers_bp,
            services_bp,
            quotes_bp,
            jobs_bp,
            invoices_bp,
            webhooks_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
                schema:
                  type: object
                  properties:
                    status:
                      type: string
                    message:
                      type: string
            """
            return {"status": "ok", "message": "Backend is running!"}, 200

        print(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

        if app.config.get("SCHEDULER_ENABLED"):
            init_scheduler(app)
        else:
            print("[SCHEDULER] Disabled by SCHEDULER_ENABLED")

    except Exception as e:
        print(f"Error during app creation: {e}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/fieldbook
    #       SECRET_KEY=<random string>
    #       STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET for live payment links

    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
