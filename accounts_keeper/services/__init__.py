"""
Services package.

storage: document store interface and backends
auth: email/password accounts over the document store
"""
