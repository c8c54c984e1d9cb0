from passlib.hash import bcrypt

BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    return bcrypt.using(rounds=BCRYPT_ROUNDS).hash(password)


def verify_password(password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.verify(password, hashed_password)
    except ValueError:
        # Malformed hash in storage.
        return False
