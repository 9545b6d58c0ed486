"""
Simple helper to create the users table using SQLAlchemy metadata.

Usage:
    cd backend
    DATABASE_URL=sqlite:///./library.db python scripts/create_schema.py
"""

from app.core.db import create_all


def main() -> None:
    create_all()


if __name__ == "__main__":
    main()
