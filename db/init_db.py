"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

from db.connection import get_connection, release_connection
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Entities: organisational tree carrying the autoupdate/autoclean settings.
-- -2 means "use the parent entity's value".
CREATE TABLE IF NOT EXISTS entities (
    id                      SERIAL PRIMARY KEY,
    name                    VARCHAR(255) NOT NULL,
    entities_id             INT REFERENCES entities(id) ON DELETE CASCADE,
    is_location_autoupdate  SMALLINT NOT NULL DEFAULT -2,
    is_user_autoupdate      SMALLINT NOT NULL DEFAULT -2,
    is_group_autoupdate     SMALLINT NOT NULL DEFAULT -2,
    is_contact_autoupdate   SMALLINT NOT NULL DEFAULT -2,
    state_autoupdate_mode   INT NOT NULL DEFAULT -2,
    is_location_autoclean   SMALLINT NOT NULL DEFAULT -2,
    is_user_autoclean       SMALLINT NOT NULL DEFAULT -2,
    is_group_autoclean      SMALLINT NOT NULL DEFAULT -2,
    is_contact_autoclean    SMALLINT NOT NULL DEFAULT -2,
    state_autoclean_mode    INT NOT NULL DEFAULT -2
);

-- Root entity: concrete values, nothing to inherit from.
INSERT INTO entities (
    id, name, entities_id,
    is_location_autoupdate, is_user_autoupdate, is_group_autoupdate,
    is_contact_autoupdate, state_autoupdate_mode,
    is_location_autoclean, is_user_autoclean, is_group_autoclean,
    is_contact_autoclean, state_autoclean_mode
)
VALUES (0, 'Root entity', NULL, 1, 1, 1, 1, 0, 0, 0, 0, 0, 0)
ON CONFLICT (id) DO NOTHING;

-- Assets: hosts (computers) and peripherals (monitors, printers, ...) share one table.
CREATE TABLE IF NOT EXISTS assets (
    id              SERIAL PRIMARY KEY,
    itemtype        VARCHAR(100) NOT NULL,
    name            VARCHAR(255) NOT NULL DEFAULT '',
    entities_id     INT NOT NULL DEFAULT 0 REFERENCES entities(id),
    is_recursive    BOOLEAN NOT NULL DEFAULT FALSE,
    is_global       BOOLEAN NOT NULL DEFAULT FALSE,
    locations_id    INT,
    users_id        INT,
    groups_id       INT,
    contact         VARCHAR(255) NOT NULL DEFAULT '',
    contact_num     VARCHAR(255) NOT NULL DEFAULT '',
    states_id       INT,
    is_dynamic      BOOLEAN NOT NULL DEFAULT FALSE,
    is_deleted      BOOLEAN NOT NULL DEFAULT FALSE,
    serial          VARCHAR(255),
    otherserial     VARCHAR(255),
    date_creation   TIMESTAMPTZ DEFAULT NOW(),
    date_mod        TIMESTAMPTZ DEFAULT NOW()
);

-- Connections between a host asset and a peripheral asset.
CREATE TABLE IF NOT EXISTS asset_peripheralassets (
    id                      SERIAL PRIMARY KEY,
    itemtype_asset          VARCHAR(100) NOT NULL,
    items_id_asset          INT NOT NULL,
    itemtype_peripheral     VARCHAR(100) NOT NULL,
    items_id_peripheral     INT NOT NULL,
    is_deleted              BOOLEAN NOT NULL DEFAULT FALSE,
    is_dynamic              BOOLEAN NOT NULL DEFAULT FALSE,
    date_creation           TIMESTAMPTZ DEFAULT NOW(),
    date_mod                TIMESTAMPTZ DEFAULT NOW()
);

-- Users: credentials, tokens, expiration metadata and substitution window.
CREATE TABLE IF NOT EXISTS users (
    id                          SERIAL PRIMARY KEY,
    name                        VARCHAR(255) NOT NULL,
    realname                    VARCHAR(255),
    firstname                   VARCHAR(255),
    password                    VARCHAR(255) NOT NULL DEFAULT '',
    password_last_update        TIMESTAMPTZ,
    password_history            TEXT NOT NULL DEFAULT '[]',
    password_forget_token       VARCHAR(40),
    password_forget_token_date  TIMESTAMPTZ,
    personal_token              VARCHAR(255),
    personal_token_date         TIMESTAMPTZ,
    api_token                   VARCHAR(255),
    api_token_date              TIMESTAMPTZ,
    user_dn                     TEXT,
    user_dn_hash                VARCHAR(32),
    sync_field                  VARCHAR(255),
    authtype                    SMALLINT NOT NULL DEFAULT 1,
    auths_id                    INT NOT NULL DEFAULT 0,
    is_active                   BOOLEAN NOT NULL DEFAULT TRUE,
    is_deleted                  BOOLEAN NOT NULL DEFAULT FALSE,
    entities_id                 INT NOT NULL DEFAULT 0,
    timezone                    VARCHAR(50),
    substitution_start_date     TIMESTAMPTZ,
    substitution_end_date       TIMESTAMPTZ,
    telegram_id                 BIGINT UNIQUE,
    date_creation               TIMESTAMPTZ DEFAULT NOW(),
    date_mod                    TIMESTAMPTZ DEFAULT NOW()
);

-- User emails: several addresses per user, at most one default.
CREATE TABLE IF NOT EXISTS user_emails (
    id          SERIAL PRIMARY KEY,
    users_id    INT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    email       VARCHAR(255) NOT NULL,
    is_default  BOOLEAN NOT NULL DEFAULT FALSE,
    UNIQUE(users_id, email)
);

-- Substitutes: users_id delegates its approvals to users_id_substitute.
CREATE TABLE IF NOT EXISTS validator_substitutes (
    id                      SERIAL PRIMARY KEY,
    users_id                INT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    users_id_substitute     INT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    UNIQUE(users_id, users_id_substitute)
);

-- Alerts: remembers which items were already notified, and when.
CREATE TABLE IF NOT EXISTS alerts (
    id          SERIAL PRIMARY KEY,
    itemtype    VARCHAR(100) NOT NULL,
    items_id    INT NOT NULL,
    type        SMALLINT NOT NULL,
    date        TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Indexes for faster queries
CREATE UNIQUE INDEX IF NOT EXISTS uniq_connection_pair
    ON asset_peripheralassets(itemtype_asset, items_id_asset, itemtype_peripheral, items_id_peripheral)
    WHERE is_deleted = FALSE;
CREATE INDEX IF NOT EXISTS idx_connection_peripheral
    ON asset_peripheralassets(itemtype_peripheral, items_id_peripheral);
CREATE INDEX IF NOT EXISTS idx_assets_itemtype ON assets(itemtype);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_users_name ON users(name) WHERE is_deleted = FALSE;
CREATE INDEX IF NOT EXISTS idx_users_dn_hash ON users(user_dn_hash);
CREATE INDEX IF NOT EXISTS idx_user_emails_email ON user_emails(LOWER(email));
CREATE INDEX IF NOT EXISTS idx_alerts_item ON alerts(itemtype, items_id, type);
"""


def create_tables() -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
        logger.info("Database schema initialized successfully.")
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to initialize schema: {e}")
        raise
    finally:
        release_connection(conn)


if __name__ == "__main__":
    from db.connection import init_pool
    init_pool()
    create_tables()
    print("✅ Database schema created successfully.")
