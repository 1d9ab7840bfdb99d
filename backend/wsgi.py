from retoro import create_app

app = create_app()
