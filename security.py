import bcrypt


def add_security_headers(response):
    """Add security headers to response"""
    response.headers['Content-Security-Policy'] = (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "form-action 'self'"
    )
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'same-origin'

    if any(response.mimetype.startswith(t) for t in ['text/css', 'application/javascript', 'image/']):
        response.headers['Cache-Control'] = 'public, max-age=31536000'
    else:
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'

    return response


def init_security(app):
    """Register the response hooks on the Flask app"""
    app.after_request(add_security_headers)


def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(stored, candidate):
    """Compare a login attempt with the stored password.

    Accounts imported from the old site still hold plaintext passwords.
    """
    if not stored or candidate is None:
        return False
    if stored.startswith(('$2a$', '$2b$', '$2y$')):
        try:
            return bcrypt.checkpw(candidate.encode('utf-8'), stored.encode('utf-8'))
        except ValueError:
            return False
    return stored == candidate
