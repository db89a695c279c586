import os

from app import create_app

app = create_app(os.environ.get('FLASK_CONFIG', 'default'))


def main():
    # Local development server; production runs app through a WSGI server
    port = int(os.environ.get('PORT', 5001))
    app.logger.info('Access the API at http://127.0.0.1:%d/api', port)
    app.run(host='127.0.0.1', port=port, debug=app.config['DEBUG'])


if __name__ == '__main__':
    main()
