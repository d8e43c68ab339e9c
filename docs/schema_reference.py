"""
Database Schema Reference
=========================

This file provides a quick reference for all database tables and columns.
For actual SQLAlchemy models, see: radiocap/db/models.py

"""

# ============================================================================
# CALL_RECORDINGS - One row per stored recording of a transmission
# ============================================================================
#
# | Column     | Type          | Constraints                               |
# |------------|---------------|-------------------------------------------|
# | talkgroup  | INTEGER       | PRIMARY KEY (part 1), -1 when unknown     |
# | added      | BIGINT        | PRIMARY KEY (part 2), ingest ms           |
# | key        | VARCHAR(1024) | NOT NULL, UNIQUE, INDEX (object key)      |
# | start_time | FLOAT         | NULLABLE, capture seconds                 |
# | end_time   | FLOAT         | NULLABLE, capture seconds                 |
# | len        | FLOAT         | NULLABLE, seconds                         |
# | freq       | BIGINT        | NULLABLE, Hz                              |
# | emergency  | INTEGER       | NOT NULL, DEFAULT 0 (0 / 1)               |
# | tone       | BOOLEAN       | NOT NULL, DEFAULT FALSE                   |
# | tone_index | VARCHAR(1)    | NOT NULL, DEFAULT 'n' ('y' / 'n')         |
# | tower      | VARCHAR(100)  | NULLABLE ('vhf' for VHF uploads)          |
# | sources    | JSON          | NULLABLE, list of radio IDs               |
# | transcript | TEXT          | NULLABLE, filled by transcription         |
# | page_sent  | BOOLEAN       | NULLABLE, set once when the page goes out |
# | usage_counted | BOOLEAN    | NOT NULL, DEFAULT FALSE, counted in usage |
#
# Uploads of the same transmission from several sites share talkgroup,
# emergency and tone with overlapping [start_time, end_time]. Only the
# longest one survives (ties go to the earliest added).


# ============================================================================
# KEY_TRANSLATIONS - Deleted duplicate key -> surviving key
# ============================================================================
#
# | Column     | Type          | Constraints                         |
# |------------|---------------|-------------------------------------|
# | key        | VARCHAR(1024) | PRIMARY KEY                         |
# | new_key    | VARCHAR(1024) | NOT NULL                            |
# | expires_at | BIGINT        | NOT NULL, INDEX, epoch seconds      |
#
# Rows past expires_at are ignored on lookup and purged every 10 minutes.


# ============================================================================
# TALKGROUP_USAGE / RADIO_USAGE - Denormalized usage counters
# ============================================================================
#
# | Column              | Type        | Constraints                 |
# |---------------------|-------------|-----------------------------|
# | talkgroup/radio_id  | INT/BIGINT  | PRIMARY KEY                 |
# | in_use              | VARCHAR(1)  | NOT NULL, DEFAULT 'N', INDEX|
# | count               | INTEGER     | NOT NULL, DEFAULT 0, >= 0   |


# ============================================================================
# INDEXES
# ============================================================================
#
# | Table            | Index Name                          | Columns               |
# |------------------|-------------------------------------|-----------------------|
# | call_recordings  | ix_call_recordings_key              | key (unique)          |
# | call_recordings  | ix_call_recordings_talkgroup_start  | talkgroup, start_time |
# | call_recordings  | ix_call_recordings_tone_index       | tone_index, added     |
# | key_translations | ix_key_translations_expires_at      | expires_at            |
# | talkgroup_usage  | ix_talkgroup_usage_in_use           | in_use                |
# | radio_usage      | ix_radio_usage_in_use               | in_use                |
