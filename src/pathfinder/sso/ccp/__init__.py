"""
EVE Online SSO and CREST Integration

Key Components:
- web.py: HTTP adapter shared by every outbound request
- sso.py: Token exchange and identity verification against the SSO
- crest.py: Traversal of the CREST link graph
- mapper.py: CREST and SSO documents mapped to typed records
- location.py: Cached character location lookups
- login.py: The login flow from authorization redirect to session
- errors.py: Failure kinds and user facing messages
"""
