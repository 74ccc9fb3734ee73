"""gensonnet — lockfile-backed incremental build planner for schema-to-code generation."""
