# Pydantic request/response and settings schemas
