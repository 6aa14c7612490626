import os

# Settings are validated on first use; tests run against a throwaway environment.
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "isa_payments_test")
os.environ.setdefault("ENV", "test")
