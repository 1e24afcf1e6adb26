"""
Internationalization (i18n) module for the domain enforcer system.

Provides translations for all user-facing messages in German (de) and English (en).
"""

from typing import Optional


# Supported languages
SUPPORTED_LANGUAGES = frozenset({"de", "en"})
DEFAULT_LANGUAGE = "en"


# Translation dictionary with all messages
# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Domain validation messages
    "validation.empty_input": {
        "de": "Domain-Eingabe ist leer",
        "en": "Domain input is empty",
    },
    "validation.missing_dot": {
        "de": "Domain muss mindestens einen Punkt enthalten",
        "en": "Domain must contain at least one dot",
    },
    "validation.consecutive_dots": {
        "de": "Domain enthält ein leeres Label",
        "en": "Domain contains an empty label",
    },
    "validation.edge_hyphen": {
        "de": "Domain beginnt oder endet mit einem Bindestrich",
        "en": "Domain starts or ends with a hyphen",
    },
    "validation.forbidden_chars": {
        "de": "Domain enthält ungültige Zeichen",
        "en": "Domain contains forbidden characters",
    },
    "validation.idna_error": {
        "de": "IDNA-Kodierung fehlgeschlagen",
        "en": "IDNA encoding failed",
    },

    # Synchronization results
    "sync.ok_domains": {
        "de": "Systemsperre synchronisiert: {count} Domain(s) aktiv.",
        "en": "System block sync OK: {count} domain(s) active.",
    },
    "sync.ok_no_domains": {
        "de": "Systemsperre synchronisiert: keine aktiven Domains.",
        "en": "System block sync OK: no active domains.",
    },
    "sync.simulated": {
        "de": "Simulation: {count} Domain(s) vorbereitet, nichts wurde geändert.",
        "en": "Simulation: {count} domain(s) staged, nothing was changed.",
    },
    "sync.skipped_unchanged": {
        "de": "Keine Änderungen - Synchronisierung übersprungen.",
        "en": "No changes - sync skipped.",
    },
    "sync.skipped_in_progress": {
        "de": "Eine Synchronisierung läuft bereits.",
        "en": "A sync is already in progress.",
    },
    "sync.skipped_backoff": {
        "de": "Letzte Synchronisierung fehlgeschlagen. Warte auf den nächsten Versuch.",
        "en": "Last sync failed. Waiting before the next attempt.",
    },
    "sync.authorization_canceled": {
        "de": "Die Administrator-Autorisierung wurde abgebrochen. Änderungen wurden nicht übernommen.",
        "en": "Admin authorization was canceled. Changes were not applied.",
    },
    "sync.failed": {
        "de": "Aktualisierung der Systemsperre fehlgeschlagen. Änderungen wurden nicht übernommen. {error}",
        "en": "System blocking update failed. Changes were not applied. {error}",
    },
    "sync.source_failed": {
        "de": "Domainliste konnte nicht gelesen werden. Änderungen wurden nicht übernommen. {error}",
        "en": "Could not read the domain list. Changes were not applied. {error}",
    },

    # Simulation mode
    "simulation.enabled": {
        "de": "⚠️  Simulationsmodus aktiv - es werden keine Systemdateien geändert",
        "en": "⚠️  Simulation mode enabled - no system files will be changed",
    },

    # CLI messages
    "cli.no_domains": {
        "de": "Keine gültigen Domains angegeben",
        "en": "No valid domains given",
    },
    "cli.domain_rejected": {
        "de": "Übersprungen: {domain} ({reason})",
        "en": "Skipped: {domain} ({reason})",
    },
    "cli.nothing_resolved": {
        "de": "Keine Adressen aufgelöst",
        "en": "No addresses resolved",
    },
    "cli.watching": {
        "de": "Überwache {source} alle {seconds}s (Strg+C zum Beenden)",
        "en": "Watching {source} every {seconds}s (Ctrl+C to stop)",
    },
    "cli.hosts_changed": {
        "de": "Hosts-Datei geändert",
        "en": "Hosts file changed",
    },
    "cli.anchor_changed": {
        "de": "Firewall-Anker geändert",
        "en": "Firewall anchor changed",
    },
    "cli.command": {
        "de": "Befehl",
        "en": "Command",
    },

    # Status command
    "status.hosts_active": {
        "de": "Hosts-Sperre aktiv: {count} Hostname(n)",
        "en": "Hosts block active: {count} hostname(s)",
    },
    "status.hosts_inactive": {
        "de": "Keine Hosts-Sperre aktiv",
        "en": "No hosts block active",
    },
    "status.anchor_entries": {
        "de": "Firewall-Anker: {ipv4} IPv4-Einträge, {ipv6} IPv6-Einträge",
        "en": "Firewall anchor: {ipv4} IPv4 entries, {ipv6} IPv6 entries",
    },
    "status.anchor_updated": {
        "de": "Zuletzt aktualisiert: {updated}",
        "en": "Last updated: {updated}",
    },
    "status.anchor_fresh": {
        "de": "Anker-Stand ist aktuell",
        "en": "Anchor snapshot is fresh",
    },
    "status.anchor_stale": {
        "de": "Anker-Stand ist veraltet und wird beim nächsten Lauf ersetzt",
        "en": "Anchor snapshot is stale and will be replaced on the next run",
    },

    # Config command
    "config.not_found": {
        "de": "Keine Konfiguration gefunden unter: {path}",
        "en": "No configuration found at: {path}",
    },
    "config.init_hint": {
        "de": "Mit 'config init' eine Standardkonfiguration erstellen.",
        "en": "Use 'config init' to create a default configuration.",
    },
    "config.loaded_from": {
        "de": "Konfiguration aus: {path}",
        "en": "Configuration from: {path}",
    },
    "config.exists": {
        "de": "Konfiguration existiert bereits unter: {path}",
        "en": "Configuration already exists at: {path}",
    },
    "config.force_hint": {
        "de": "Mit --force überschreiben.",
        "en": "Use --force to overwrite.",
    },
    "config.created": {
        "de": "Konfiguration erstellt unter: {path}",
        "en": "Configuration created at: {path}",
    },
    "config.valid": {
        "de": "Konfiguration unter {path} ist gültig.",
        "en": "Configuration at {path} is valid.",
    },
    "config.invalid": {
        "de": "Konfiguration unter {path} ist ungültig.",
        "en": "Configuration at {path} is invalid.",
    },

    # Self-test messages
    "selftest.header": {
        "de": "Domain-Enforcer Selbsttest",
        "en": "Domain Enforcer Self-Test",
    },
    "selftest.config_validation": {
        "de": "Konfigurationsprüfung:",
        "en": "Configuration validation:",
    },
    "selftest.config_valid": {
        "de": "Konfiguration ist gültig",
        "en": "Configuration is valid",
    },
    "selftest.config_invalid": {
        "de": "Konfiguration ist ungültig",
        "en": "Configuration is invalid",
    },
    "selftest.warnings": {
        "de": "Warnungen:",
        "en": "Warnings:",
    },
    "selftest.local_checks": {
        "de": "Lokale Dateien und Werkzeuge:",
        "en": "Local files and tools:",
    },
    "selftest.connectivity": {
        "de": "DoH-Erreichbarkeit:",
        "en": "DoH connectivity:",
    },
    "selftest.error": {
        "de": "Fehler",
        "en": "Error",
    },
    "selftest.success": {
        "de": "Selbsttest erfolgreich",
        "en": "Self-test passed",
    },
    "selftest.failed": {
        "de": "Selbsttest fehlgeschlagen",
        "en": "Self-test failed",
    },
    "selftest.duration": {
        "de": "Dauer",
        "en": "Duration",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'sync.authorization_canceled')
        language: Language code ('de' or 'en'). Defaults to DEFAULT_LANGUAGE.
        **kwargs: Format arguments for the message template

    Returns:
        The translated and formatted message string.
        If the key is not found, returns the key itself.
        If the language is not found, falls back to DEFAULT_LANGUAGE.

    Examples:
        >>> get_message('sync.ok_no_domains', 'en')
        'System block sync OK: no active domains.'
        >>> get_message('sync.ok_domains', 'de', count=2)
        'Systemsperre synchronisiert: 2 Domain(s) aktiv.'
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language)
    if message is None:
        message = translations.get(DEFAULT_LANGUAGE)
    if message is None:
        return key

    if kwargs:
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Missing argument: return the template unformatted
            pass

    return message


def get_all_message_keys() -> set[str]:
    """
    Get all available message keys.

    Returns:
        Set of all message keys in the translation dictionary.
    """
    return set(TRANSLATIONS.keys())


def has_translation(key: str, language: str) -> bool:
    """
    Check if a translation exists for a key and language.

    Args:
        key: The message key
        language: The language code

    Returns:
        True if translation exists, False otherwise.
    """
    translations = TRANSLATIONS.get(key)
    if translations is None:
        return False
    return language in translations


def get_missing_translations(language: str) -> set[str]:
    """
    Get all message keys that are missing translations for a language.

    Args:
        language: The language code to check

    Returns:
        Set of message keys missing translations for the specified language.
    """
    missing = set()
    for key, translations in TRANSLATIONS.items():
        if language not in translations:
            missing.add(key)
    return missing


def validate_translations() -> dict[str, set[str]]:
    """
    Validate that all languages have all translations.

    Returns:
        Dictionary mapping language codes to sets of missing message keys.
        Empty sets indicate complete translations.
    """
    result = {}
    for language in SUPPORTED_LANGUAGES:
        result[language] = get_missing_translations(language)
    return result
