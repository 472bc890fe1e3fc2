# Core infrastructure: config, errors, database, logging helpers
