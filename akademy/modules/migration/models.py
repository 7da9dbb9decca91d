# Supabase tables: strapi_migrations, agreements, headquarters, roles, seasons
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in the migration services

"""
Expected Supabase table structure:

strapi_migrations (append-only run ledger):
- id: bigint (primary key, identity)
- last_migrated_at: timestamp (not null) - most recent Strapi createdAt/updatedAt processed
- status: text (not null) - "success" | "failed"
- records_processed: integer (default: 0)
- error_message: text (nullable)
- migration_timestamp: timestamp (default: now()) - when the run was recorded
- created_at: timestamp (default: now())

headquarters:
- id: uuid (primary key)
- name: text - free-text display name, matched after normalization

roles:
- id: uuid (primary key)
- name: text - display name, matched after normalization
- code: text (not null)
- level: integer (not null) - used by role-level authorization

seasons:
- id: uuid (primary key)
- headquarter_id: uuid (foreign key to headquarters.id, not null)
- name: text (not null)
- status: text (nullable) - exactly one "active" season per headquarter is expected

agreements:
- id: uuid (primary key)
- headquarter_id: uuid (foreign key to headquarters.id, not null)
- season_id: uuid (foreign key to seasons.id, not null)
- role_id: uuid (foreign key to roles.id, not null)
- user_id: uuid (nullable) - set when a user is created from the agreement
- status: text - "prospect" | "active" | "inactive" | "graduated"
- email: text (not null)
- document_number, phone, name, last_name, address: text (nullable)
- volunteering_agreement, ethical_document_agreement, mailing_agreement,
  age_verification: boolean (nullable)
- signature_data: text (nullable)
- activation_date, created_at, updated_at: timestamp (nullable)
"""
