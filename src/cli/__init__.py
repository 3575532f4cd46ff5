# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Operator tools for agroSage, run with `python -m src.cli <command>`:
#
#   token <user_id>     Mint a signed user token for API / WebSocket calls
#   verify <token>      Show which user a token belongs to, or why it fails
#   init-db             Create the knowledge database and its tables
#   stats               Count crops and diseases in the knowledge database
#
# Settings come from the same .env / environment variables as the server.
# =============================================================================
