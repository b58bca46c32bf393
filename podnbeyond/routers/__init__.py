# Routers package
