"""
Pathfinder SSO - EVE Online login and CREST client

This package implements the login side of the Pathfinder mapping tool: users authenticate with the
EVE Online SSO (OAuth 2.0 authorization code flow), and the service reads their character data
through the CREST hypermedia API.

Key Components:
- app: Web application layer with request handlers, sessions and server configuration
- ccp: Clients for the SSO and CREST, the location cache and the login flow
- model: Database models for characters, their organizations and the users that own them

Architecture Overview:
1. Authentication Flow:
   - User agent is redirected to the SSO with a single use state token
   - The authorization code is exchanged for a token pair and the character verified
   - Character, corporation and alliance are stored and the session logged in

2. CREST Access:
   - Resources are reached by following named links from the root document
   - Character locations are cached in redis for a few seconds per access token
"""
