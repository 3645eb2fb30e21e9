"""
Create PostgreSQL trigger rejecting UPDATE and DELETE on ledger transactions.

This migration:
1. Creates a trigger function that raises on any row UPDATE or DELETE
2. Attaches the trigger to the treasury_transaction table

Trigger Behavior:
    - INSERT is unaffected (LedgerService appends entries)
    - UPDATE and DELETE raise, whatever the client (ORM, raw SQL, psql)
    - TRUNCATE is not a row event and is unaffected (test database flush)
"""

from django.db import migrations


CREATE_TRIGGER_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION treasury_transaction_immutable_trigger()
RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION 'treasury_transaction rows are immutable (% rejected)', TG_OP
        USING ERRCODE = 'restrict_violation';
END
$$ LANGUAGE plpgsql;
"""

CREATE_TRIGGER_SQL = """
CREATE TRIGGER treasury_transaction_immutable
    BEFORE UPDATE OR DELETE
    ON treasury_transaction
    FOR EACH ROW
    EXECUTE FUNCTION treasury_transaction_immutable_trigger();
"""

DROP_TRIGGER_SQL = (
    "DROP TRIGGER IF EXISTS treasury_transaction_immutable ON treasury_transaction;"
)
DROP_FUNCTION_SQL = "DROP FUNCTION IF EXISTS treasury_transaction_immutable_trigger();"


def create_immutability_trigger(apps, schema_editor):
    """Create the trigger function and trigger."""
    if schema_editor.connection.vendor != "postgresql":
        return

    schema_editor.execute(CREATE_TRIGGER_FUNCTION_SQL)
    schema_editor.execute(CREATE_TRIGGER_SQL)


def remove_immutability_trigger(apps, schema_editor):
    """Remove the trigger and function."""
    if schema_editor.connection.vendor != "postgresql":
        return

    schema_editor.execute(DROP_TRIGGER_SQL)
    schema_editor.execute(DROP_FUNCTION_SQL)


class Migration(migrations.Migration):
    dependencies = [
        ("treasury", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            create_immutability_trigger,
            remove_immutability_trigger,
        ),
    ]
