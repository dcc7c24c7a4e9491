from .core import get_db_connection, db_connection, retry_on_db_lock
from .schema_management import initialize_database, migrate_from_json_if_needed
from .shows import (
    get_all_shows,
    get_tracked_shows,
    get_show,
    insert_show,
    update_show,
    delete_show,
    update_last_downloaded,
)
from .filters import (
    get_global_filters,
    get_all_filters,
    get_filter,
    create_filter,
    update_filter,
    delete_filter,
    toggle_filter,
    get_show_filters,
    create_show_filter,
    delete_show_filter,
)
from .download_history import (
    DuplicateDownloadError,
    is_already_downloaded,
    record_download,
    get_show_history,
    get_all_history,
)
from .polling_config import (
    get_polling_config,
    update_poll_interval,
    update_last_poll_time,
    set_polling_enabled,
)
