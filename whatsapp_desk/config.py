from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./whatsapp_desk.db"
    auto_create_tables: bool = True
    log_level: str = "INFO"

    # WhatsApp Cloud API
    verify_token: str = ""
    whatsapp_token: str = ""
    phone_number_id: str = ""
    graph_api_base_url: str = "https://graph.facebook.com"
    graph_api_version: str = "v17.0"
    app_secret: str = ""

    # Splynx billing system
    splynx_base_url: str = "https://splynx.vinet.co.za/api/2.0"
    splynx_api_key: str = ""
    splynx_api_secret: str = ""

    http_timeout_seconds: float = 10.0
    operator_timezone: str = "Africa/Johannesburg"

    company_name: str = "Vinet"
    payment_eft_details: str = "FNB 62874851762, Branch: 200912"
    payment_portal_url: str = "https://pay.vinet.co.za"
    usage_portal_url: str = "https://client.vinet.co.za"
    global_closed_default_message: str = (
        "Our offices are currently closed. We'll get back to you as soon as we reopen."
    )

    media_storage_dir: str = "./media"
    media_max_bytes: int = 16 * 1024 * 1024
    public_base_url: str = "http://localhost:8000"

    admin_api_token: str = ""
    cors_allow_origins: str = "*"

    alert_bot_token: str = ""
    alert_chat_id: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
