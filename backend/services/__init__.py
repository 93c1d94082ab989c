from .auth import (
    hash_password, verify_password, create_access_token, decode_token,
    get_current_user, actor_name, oauth2_scheme, TOKEN_COOKIE
)
from .ids import next_sequence, generate_unit_id, generate_donor_id, generate_report_id
from .labels import generate_qr_base64
