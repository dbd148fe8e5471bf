"""
Baynana auth server.

Registers users, logs them in and checks username availability, issuing
Firebase custom tokens. Users are stored in Firestore, or in a SQL database
when DATABASE_URL is set.
"""
