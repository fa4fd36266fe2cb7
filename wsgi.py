from callpipe import create_app

app = create_app()
