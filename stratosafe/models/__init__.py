from stratosafe.models.user import User
from stratosafe.models.mfa import BackupCodeSet, MfaDisabled, MfaEnabled, MfaPending, MfaState
