#!/usr/bin/env python3
"""Seed the hotel/user directory with demo records."""
import json
import os
import sqlite3

from faker import Faker

from .run_migrations import run_migrations

DB = os.getenv("DB_PATH", "./data/laundry.db")

fake = Faker()

def add_hotel(db_path, hotel_id, name, address="", manager_id=None):
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("INSERT OR REPLACE INTO hotels(id, name, address, manager_id) VALUES (?,?,?,?)",
                     (hotel_id, name, address, manager_id))
        conn.commit()
    finally:
        conn.close()
    return hotel_id

def add_user(db_path, uid, name, role, email=None, assigned_hotels=()):
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""INSERT OR REPLACE INTO users(uid, email, name, role, assigned_hotels)
                        VALUES (?,?,?,?,?)""",
                     (uid, email or f"{uid}@example.com", name, role, json.dumps(list(assigned_hotels))))
        conn.commit()
    finally:
        conn.close()
    return uid

def seed_demo(db_path=DB, n_hotels=3, n_drivers=2, seed=42):
    """One admin, one manager per hotel, a few drivers. Returns the ids created."""
    Faker.seed(seed)
    run_migrations(db_path, verbose=False)
    created = {"admins": [], "hotels": [], "managers": [], "drivers": []}

    created["admins"].append(add_user(db_path, "admin-001", fake.name(), "admin"))
    for i in range(n_hotels):
        hotel_id = f"hotel-{i+1:03d}"
        manager_id = f"mgr-{i+1:03d}"
        add_hotel(db_path, hotel_id, f"{fake.last_name()} Hotel", fake.address().replace("\n", ", "), manager_id)
        add_user(db_path, manager_id, fake.name(), "hotel_manager", assigned_hotels=[hotel_id])
        created["hotels"].append(hotel_id)
        created["managers"].append(manager_id)
    for j in range(n_drivers):
        created["drivers"].append(add_user(db_path, f"drv-{j+1:03d}", fake.name(), "driver"))
    return created

if __name__ == "__main__":
    ids = seed_demo()
    print(f"✔ Seeded {len(ids['hotels'])} hotels, {len(ids['drivers'])} drivers, "
          f"{len(ids['managers'])} managers and {len(ids['admins'])} admin into {DB}")
