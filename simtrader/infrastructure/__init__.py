"""
SimTrader - Infrastructure Layer
=================================
Implementaciones concretas de los ports de application/.

Este módulo contiene:
- persistence/snapshot_store.py: snapshot JSON local
- persistence/database.py: engine async de SQLAlchemy
- persistence/models/: modelos ORM
- persistence/sql_gateway.py: Persistence Gateway SQL

Puede importar de:
- domain/ (entidades)
- application/ (ports, dto)
- shared/ (config, logging)
"""
