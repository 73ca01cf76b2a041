from app.extensions import db
from app.models import Base
from main import create_app

app = create_app()

# Creates any missing tables; existing tables are left untouched
with app.app_context():
    Base.metadata.create_all(bind=db.engine)
    for table in Base.metadata.sorted_tables:
        print(f"  ✓ {table.name}")

print("Database schema is up to date!")
