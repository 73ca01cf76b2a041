"""
Swagger/OpenAPI configuration for the Fieldbook API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

_LINE_ITEM = {
    "type": "object",
    "required": ["description", "price"],
    "properties": {
        "service_id": {"type": "string", "description": "Optional catalog service"},
        "description": {"type": "string", "example": "Lawn Mow"},
        "quantity": {"type": "integer", "minimum": 1, "example": 1},
        "price": {"type": "number", "format": "float", "example": 45.0},
    },
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Fieldbook API",
        "description": "Back office API for small service businesses: customers, services, quotes, jobs, invoices and payment links",
        "contact": {"email": "support@fieldbook.app"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Signup, login, logout and password reset"},
        {"name": "Profile", "description": "Business profile and operating hours"},
        {"name": "Dashboard", "description": "Summary counts and onboarding progress"},
        {"name": "Customers", "description": "Customer records"},
        {"name": "Services", "description": "Service catalog"},
        {"name": "Quotes", "description": "Quotes and their conversion into jobs"},
        {"name": "Jobs", "description": "Job scheduling and progress"},
        {"name": "Invoices", "description": "Invoices and payment status"},
        {"name": "Payments", "description": "Checkout links and Stripe webhooks"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
                "details": {"type": "object"},
                "errors": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "field": {"type": "string"},
                            "message": {"type": "string"},
                        },
                    },
                },
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "SignupPayload": {
            "type": "object",
            "required": ["email", "password"],
            "properties": {
                "email": {"type": "string", "format": "email", "example": "owner@example.com"},
                "password": {"type": "string", "example": "Password123"},
                "business_name": {"type": "string", "example": "Green Thumb Lawn Care"},
            },
        },
        "LoginPayload": {
            "type": "object",
            "required": ["email", "password"],
            "properties": {
                "email": {"type": "string", "format": "email", "example": "owner@example.com"},
                "password": {"type": "string", "example": "Password123"},
            },
        },
        "ProfilePayload": {
            "type": "object",
            "properties": {
                "business_name": {"type": "string"},
                "address": {"type": "string"},
                "phone": {"type": "string"},
                "email": {"type": "string", "format": "email"},
                "website": {"type": "string"},
                "description": {"type": "string"},
                "service_area": {"type": "string"},
                "operating_hours": {
                    "type": "object",
                    "example": {
                        "monday": {"open": "08:00", "close": "16:00", "closed": False},
                        "sunday": {"closed": True},
                    },
                },
                "latitude": {"type": "number", "format": "float"},
                "longitude": {"type": "number", "format": "float"},
            },
        },
        "CustomerPayload": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "example": "Jane Doe"},
                "email": {"type": "string", "format": "email", "example": "jane@example.com"},
                "phone": {"type": "string", "example": "555-123-4567"},
                "address": {"type": "string"},
                "notes": {"type": "string"},
                "preferred_contact": {"type": "string", "enum": ["email", "phone"]},
            },
        },
        "ServicePayload": {
            "type": "object",
            "required": ["name", "price"],
            "properties": {
                "name": {"type": "string", "example": "Lawn Mow"},
                "description": {"type": "string"},
                "price": {"type": "number", "format": "float", "example": 45.0},
                "duration": {"type": "integer", "description": "Minutes", "example": 60},
                "category": {"type": "string"},
            },
        },
        "LineItem": _LINE_ITEM,
        "QuotePayload": {
            "type": "object",
            "required": ["customer_id", "items", "valid_until"],
            "properties": {
                "customer_id": {"type": "string"},
                "items": {"type": "array", "items": _LINE_ITEM},
                "valid_until": {"type": "string", "format": "date", "example": "2024-06-30"},
                "notes": {"type": "string"},
            },
        },
        "JobPayload": {
            "type": "object",
            "required": ["customer_id", "service_name"],
            "properties": {
                "customer_id": {"type": "string"},
                "service_name": {"type": "string"},
                "scheduled_start": {
                    "type": "string",
                    "format": "date-time",
                    "description": "Give both ends of the slot or neither",
                },
                "scheduled_end": {"type": "string", "format": "date-time"},
                "notes": {"type": "string"},
            },
        },
        "SchedulePayload": {
            "type": "object",
            "required": ["date", "start_time", "duration_hours"],
            "properties": {
                "date": {"type": "string", "format": "date", "example": "2024-06-01"},
                "start_time": {"type": "string", "example": "09:00"},
                "duration_hours": {"type": "number", "example": 2, "maximum": 24},
            },
        },
        "PaymentLinkResponse": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "url": {"type": "string"},
                "payment_link": {"type": "object"},
            },
        },
    },
}
