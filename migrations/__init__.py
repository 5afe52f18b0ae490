"""SQL script execution for schema-runner.

Scripts are the ``*.sql`` files of the schema directory, processed in
file name order (e.g., 001_init.sql, 002_add_table.sql). Each one is
executed at most once; completed scripts are recorded in the
``sysdbscriptlog`` table of the target database.

Usage:
    # List scripts
    schema-runner

    # Execute pending scripts
    schema-runner --execute -s localhost -d MyDB -u postgres -p secret

    # Create a new script
    schema-runner --create "add_new_table"
"""
