# Supabase tables: agreements, roles, headquarters, countries, seasons, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Users are created from agreements rather than registered directly:

agreements (see migration/models.py for the full column list):
- status "prospect" + user_id null: eligible for user creation
- status "active" + user_id set + activation_date: after user creation
- status "inactive": after the linked user is deactivated

auth.users user_metadata written on creation:
- role: roles.code
- role_level: roles.level (read by require_min_role_level)
- role_id, hq_id, season_id, agreement_id
- name, last_name, phone

countries:
- id: uuid (primary key)
- name: text (not null)

headquarters.country_id references countries.id.
"""
