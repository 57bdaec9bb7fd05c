from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager

db = SQLAlchemy()
jwt = JWTManager()

# Revoked token ids (jti). Process-local; use Redis with TTL when running more than one worker.
BLOCKLIST = set()
