"""
Seed script for the Civic Console Firestore database.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply the seed file: python scripts/seed_db.py --apply
  - Use another seed file: python scripts/seed_db.py --seed ./my_seed.json --apply
  - Grant a console role: python scripts/seed_db.py --grant ADMIN <uid> --apply

Behavior:
  - Loads `db_seed.json` from the repo root (collections → documents).
  - Gets Firestore via `civic_console.config.firebase.get_db()`.
  - Writes each top-level collection/document to the DB.
  - --grant writes `admins/{uid}` or `supervisors/{uid}`, which the auth
    resolver reads as a role record.

NOTE: Ensure `FIREBASE_CREDENTIALS_PATH` is set in `.env` before applying.
"""

import argparse
import json
import os
from typing import Any

from civic_console.config.firebase import get_db
from civic_console.models.user import UserRole
from civic_console.services.auth_resolver import ROLE_COLLECTIONS


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_to_db(db: Any, seed: dict, apply: bool = False):
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            print(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            try:
                db.collection(collection).document(doc_id).set(data)
                print(f"Wrote: {collection}/{doc_id}")
            except Exception as e:
                print(f"Failed to write {collection}/{doc_id}: {e}")


def grant_role(db: Any, role: UserRole, uid: str, apply: bool = False):
    collection = ROLE_COLLECTIONS[role]
    print(f"Preparing: {collection}/{uid} (role {role.value})")
    if apply:
        db.collection(collection).document(uid).set({"role": role.value})
        print(f"Granted {role.value} to {uid}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write to the DB instead of dry-run")
    parser.add_argument("--seed", default=os.path.join(os.getcwd(), "db_seed.json"), help="Seed JSON file")
    parser.add_argument("--grant", nargs=2, metavar=("ROLE", "UID"), help="Grant ADMIN or SUPERVISOR to a Firebase UID")
    args = parser.parse_args()

    if args.grant:
        role_name, uid = args.grant
        try:
            role = UserRole(role_name.upper())
        except ValueError:
            print(f"Unknown role: {role_name} (expected ADMIN or SUPERVISOR)")
            return
        grant_role(get_db(), role, uid, apply=args.apply)
    else:
        if not os.path.exists(args.seed):
            print(f"Seed file not found: {args.seed}")
            return
        write_to_db(get_db(), load_seed(args.seed), apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
