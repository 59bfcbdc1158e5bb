from app.aigency import create_app

app = create_app()
