# settings_schema.py

SETTINGS_SCHEMA = {
    "Feeds": {
        "tab": "Required Settings",
        "nyaa_base_url": {
            "type": "string",
            "description": "Base URL of the searchable Nyaa feed",
            "default": "https://nyaa.si"
        },
        "nyaa_category": {
            "type": "string",
            "description": "Nyaa category to search (1_2 is English-translated anime)",
            "default": "1_2"
        },
        "nyaa_filter": {
            "type": "string",
            "description": "Nyaa filter (0 no filter, 1 no remakes, 2 trusted only)",
            "default": "0",
            "choices": ["0", "1", "2"]
        },
        "subsplease_base_url": {
            "type": "string",
            "description": "Base URL of the SubsPlease release feed",
            "default": "https://subsplease.org"
        },
        "request_timeout": {
            "type": "integer",
            "description": "Timeout in seconds for feed requests",
            "default": 30
        },
        "max_retries": {
            "type": "integer",
            "description": "Attempts per feed request when the provider is rate limiting or unavailable",
            "default": 3
        }
    },
    "Download Client": {
        "tab": "Required Settings",
        "type": {
            "type": "string",
            "description": "Download client used to fetch releases",
            "default": "transmission",
            "choices": ["transmission"]
        },
        "url": {
            "type": "string",
            "description": "Download client RPC URL (TRANSMISSION_HOST / TRANSMISSION_PORT take precedence when set)",
            "default": "http://localhost:9091/transmission/rpc"
        },
        "username": {
            "type": "string",
            "description": "Download client username",
            "default": ""
        },
        "password": {
            "type": "string",
            "description": "Download client password",
            "default": "",
            "sensitive": True
        },
        "download_root": {
            "type": "string",
            "description": "Root folder new episodes are saved under",
            "default": "/data/Anime"
        }
    },
    "Tracker": {
        "tab": "Additional Settings",
        "fallback_hours": {
            "type": "string",
            "description": "Comma separated local hours used when polling is disabled or unconfigured",
            "default": "5,17"
        },
        "run_on_start": {
            "type": "boolean",
            "description": "Run one sync pass immediately on startup",
            "default": False
        }
    },
    "Debug": {
        "tab": "Debug Settings",
        "logging_level": {
            "type": "string",
            "description": "Logging level for console output",
            "default": "INFO",
            "choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        },
        "timezone_override": {
            "type": "string",
            "description": "Override the system timezone (e.g. Europe/London). Leave empty to detect it",
            "default": ""
        }
    }
}
