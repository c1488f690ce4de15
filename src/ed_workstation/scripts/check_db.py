"""
Check the database connection and list workstation tables.
Run with: python -m ed_workstation.scripts.check_db
"""
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from ed_workstation.core.db import get_engine
from ed_workstation.models import MODELS

def main():
    try:
        engine = get_engine()
        existing = set(inspect(engine).get_table_names())

        print("Database Connection: SUCCESS\n")
        print("Workstation tables:")
        with engine.connect() as conn:
            for table, model in MODELS.items():
                if table not in existing:
                    print(f"  - {table}: MISSING")
                    continue
                count = conn.execute(select(func.count()).select_from(model.__table__)).scalar_one()
                print(f"  - {table}: {count} rows")

    except (SQLAlchemyError, ValueError) as e:
        print("Database Connection: FAILED")
        print(f"Error: {e}")

if __name__ == "__main__":
    main()
