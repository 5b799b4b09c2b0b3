from bulkops.cli.app import app

app()
