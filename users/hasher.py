import base64
import hashlib
import hmac
import secrets
import string

ALGORITHM = 'pbkdf2_sha256'
ITERATIONS = 260000
SALT_CHARS = string.ascii_letters + string.digits

def _to_bytes(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode('utf-8')

def pbkdf2(password, salt, iterations):
    """Return the raw pbkdf2-sha256 digest of password."""
    return hashlib.pbkdf2_hmac('sha256', _to_bytes(password), _to_bytes(salt), iterations)

def encode_password(password, salt, iterations=None):
    assert password is not None
    assert salt and '$' not in salt
    iterations = iterations or ITERATIONS
    digest = base64.b64encode(pbkdf2(password, salt, iterations)).decode('ascii').strip()
    return '%s$%d$%s$%s' % (ALGORITHM, iterations, salt, digest)

def make_password(password):
    return encode_password(password, get_random_string())

def verify_password(password, encoded):
    """Check a clear text password against a stored ``algorithm$iterations$salt$hash``."""
    if not encoded or encoded.count('$') != 3:
        return False
    algorithm, iterations, salt, _ = encoded.split('$', 3)
    if algorithm != ALGORITHM:
        return False
    candidate = encode_password(password, salt, int(iterations))
    return hmac.compare_digest(_to_bytes(encoded), _to_bytes(candidate))

def get_random_string(length=12, allowed_chars=SALT_CHARS):
    return ''.join(secrets.choice(allowed_chars) for _ in range(length))
