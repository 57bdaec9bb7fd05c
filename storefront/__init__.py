from storefront.app import create_app
