from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .domain import DEFAULT_LOCALE


class PhraseError(Exception):
    """A locale table lacks strings that a wizard step requests."""

    def __init__(self, missing: list[tuple[str, str]]) -> None:
        self.missing = missing
        listed = ", ".join(f"{locale}:{name}" for locale, name in missing)
        super().__init__(f"Missing translations ({len(missing)}): {listed}")


_EN = {
    "title": "LAINUXOS INSTALLER",
    "version_line": "Version v0.3 | UEFI Ready | Secure Boot Compatible",
    "unknown": "unknown",
    "no_data": "No data available",
    "scanning": "Scanning...",
    "value_on": "on",
    "value_off": "off",
    "hint_continue": "Press b to return to the menu",

    "welcome_title": "Welcome to LainuxOS Installer",
    "welcome_body": "This installer will guide you through setting up LainuxOS on your computer. "
                    "Back up any important data before proceeding.",
    "welcome_start": "• Start Installation",
    "welcome_hint": "Press Enter to begin",

    "menu_install_hardware": "Install on Hardware",
    "menu_install_vm": "Install on Virtual Machine",
    "menu_hardware_info": "Hardware Information",
    "menu_requirements": "System Requirements Check",
    "menu_config": "Configuration Selection",
    "menu_disk_info": "View Disk Information",
    "menu_network_check": "Check Network",
    "menu_network_diag": "Network Diagnostics",
    "menu_exit": "Exit Installer",
    "menu_language": "Language",
    "menu_hint": "Navigate: ↑ ↓ • Select: Enter • Language: l • Exit: q",

    "disk_title": "Select Target Disk",
    "disk_none": "No suitable disks found. Please check connections.",
    "disk_probe_failed": "Disk enumeration failed",
    "disk_removable": "removable, not selectable",
    "disk_partitions": "partitions",
    "disk_warning_erase": "WARNING: All data on the selected disk will be lost!",
    "disk_hint": "↑ ↓: Move • Enter: Select • b: Back",

    "options_title": "System Configuration",
    "options_hostname": "Computer name",
    "options_username": "Username",
    "options_password": "Password",
    "options_desktop": "Install desktop environment",
    "options_timezone": "Timezone",
    "options_filesystem": "Filesystem",
    "options_guest_agent": "Install guest agent",
    "options_ssh_server": "Install SSH server",
    "options_swap": "Enable swap",
    "options_reveal_password": "Reveal root password",
    "options_continue": "Continue",
    "options_guest_agent_unavailable": "Guest agent is only available inside a virtual machine",
    "options_guest_agent_pending": "Detecting virtualization...",
    "options_invalid_hostname": "Please enter a valid computer name",
    "options_invalid_username": "Please enter a valid username",
    "options_password_required": "Please enter a password",
    "options_locale": "System language",
    "options_hint": "↑ ↓: Move • Enter: Change/Continue • d/g/s/w/r: Toggle • type to edit name, user and password • Esc: Back",

    "summary_title": "Installation Summary",
    "summary_disk": "Installation disk",
    "summary_services": "Services",
    "summary_warning": "WARNING: All data on the selected disk will be permanently erased!",
    "summary_hint": "Enter: Install LainuxOS • b: Back",

    "install_title": "Installing LainuxOS",
    "install_preparing": "Preparing installation...",
    "install_failed_title": "Installation Failed",
    "install_failed_action": "Error during",
    "install_failed_hint": "Enter: Retry • b: Back to Summary",
    "install_done_title": "Installation Complete!",
    "install_done_body": "LainuxOS has been successfully installed. Remove the installation media and reboot.",
    "install_done_hint": "Enter: Exit Installer",

    "vm_title": "VIRTUAL MACHINE INSTALLATION",
    "vm_requirements": "Requirements: KVM or virtualization support, 20GB free disk space, 4GB RAM, Internet connection",
    "vm_kvm_available": "KVM acceleration available",
    "vm_kvm_missing": "Running without KVM acceleration",
    "vm_missing_tools": "Missing QEMU tools",

    "hw_title": "HARDWARE INFORMATION",
    "hw_overview": "System Overview",
    "hw_hostname": "Hostname",
    "hw_arch": "Architecture",
    "hw_kernel": "Kernel",
    "hw_cpu": "CPU",
    "hw_cores": "Cores",
    "hw_memory": "Memory",
    "hw_graphics": "Graphics",
    "hw_advanced": "Advanced",
    "hw_virt": "Virtualization",
    "hw_virt_supported": "Virtualization: Supported",
    "hw_virt_unavailable": "Virtualization: Not available",
    "hw_firmware_uefi": "Firmware: UEFI",
    "hw_firmware_bios": "Firmware: Legacy BIOS",
    "hw_uptime": "Uptime",
    "hw_load": "Load avg",

    "req_title": "SYSTEM REQUIREMENTS CHECK",
    "req_ram": "RAM",
    "req_cores": "Cores",
    "req_tmp": "Free space in /tmp",
    "req_ram_warning": "WARNING: Minimum 1GB RAM recommended",
    "req_cpu_warning": "WARNING: Dual-core CPU recommended",
    "req_disk_warning": "WARNING: At least 2GB free space required in /tmp",
    "req_missing_tools": "WARNING: Missing installer tools",
    "req_meets": "✓ System meets minimum requirements",
    "req_may_not_perform": "⚠ System may not perform optimally",

    "config_title": "SELECT CONFIGURATION",
    "config_saving": "Saving configuration...",
    "config_saved": "Configuration saved to",
    "config_save_failed": "Could not save configuration",

    "diskinfo_title": "Disk Information",

    "net_title": "Network Status",
    "net_checking": "Checking network...",
    "net_connected": "Connected ✓",
    "net_offline": "No connection ✗",
    "net_public_ip": "Public IP",
    "net_hint": "Enter: Recheck • b: Back",

    "diag_title": "Network Diagnostics",
    "diag_interface": "Active interface",
    "diag_gateway": "Gateway",
    "diag_no_interface": "No active interface found",

    "exit_prompt": "Exit Lainux installer?",
    "exit_type_to_confirm": "Type to confirm:",
    "exit_phrase": "EXIT",
    "exit_hint": "Enter: Confirm • Esc: Back",
}

_RU = {
    "title": "УСТАНОВЩИК LAINUXOS",
    "version_line": "Версия v0.3 | Готов к работе с UEFI | Поддержка Secure Boot",
    "unknown": "неизвестно",
    "no_data": "Нет данных",
    "scanning": "Сканирование...",
    "value_on": "вкл",
    "value_off": "выкл",
    "hint_continue": "Нажмите b для возврата в меню",

    "welcome_title": "Добро пожаловать в установщик LainuxOS",
    "welcome_body": "Установщик поможет настроить LainuxOS на вашем компьютере. "
                    "Сделайте резервную копию важных данных перед продолжением.",
    "welcome_start": "• Начать установку",
    "welcome_hint": "Нажмите Enter, чтобы начать",

    "menu_install_hardware": "Установить на оборудование",
    "menu_install_vm": "Установить в виртуальную машину",
    "menu_hardware_info": "Информация об оборудовании",
    "menu_requirements": "Проверка системных требований",
    "menu_config": "Выбор конфигурации",
    "menu_disk_info": "Информация о дисках",
    "menu_network_check": "Проверить сеть",
    "menu_network_diag": "Диагностика сети",
    "menu_exit": "Выйти из установщика",
    "menu_language": "Язык",
    "menu_hint": "Навигация: ↑ ↓ • Выбор: Enter • Язык: l • Выход: q",

    "disk_title": "Выберите целевой диск",
    "disk_none": "Подходящие диски не найдены. Проверьте подключение.",
    "disk_probe_failed": "Не удалось получить список дисков",
    "disk_removable": "съёмный, выбор недоступен",
    "disk_partitions": "разделов",
    "disk_warning_erase": "ВНИМАНИЕ: Все данные на выбранном диске будут удалены!",
    "disk_hint": "↑ ↓: Перемещение • Enter: Выбор • b: Назад",

    "options_title": "Настройка системы",
    "options_hostname": "Имя компьютера",
    "options_username": "Имя пользователя",
    "options_password": "Пароль",
    "options_desktop": "Установить графическое окружение",
    "options_timezone": "Часовой пояс",
    "options_filesystem": "Файловая система",
    "options_guest_agent": "Установить гостевой агент",
    "options_ssh_server": "Установить SSH-сервер",
    "options_swap": "Включить подкачку",
    "options_reveal_password": "Показать пароль root",
    "options_continue": "Продолжить",
    "options_guest_agent_unavailable": "Гостевой агент доступен только в виртуальной машине",
    "options_guest_agent_pending": "Определение виртуализации...",
    "options_invalid_hostname": "Введите корректное имя компьютера",
    "options_invalid_username": "Введите корректное имя пользователя",
    "options_password_required": "Введите пароль",
    "options_locale": "Язык системы",
    "options_hint": "↑ ↓: Перемещение • Enter: Изменить/Продолжить • d/g/s/w/r: Переключить • ввод текста меняет имя, пользователя и пароль • Esc: Назад",

    "summary_title": "Сводка установки",
    "summary_disk": "Диск установки",
    "summary_services": "Службы",
    "summary_warning": "ВНИМАНИЕ: Все данные на выбранном диске будут безвозвратно удалены!",
    "summary_hint": "Enter: Установить LainuxOS • b: Назад",

    "install_title": "Установка LainuxOS",
    "install_preparing": "Подготовка к установке...",
    "install_failed_title": "Установка не удалась",
    "install_failed_action": "Ошибка на шаге",
    "install_failed_hint": "Enter: Повторить • b: Назад к сводке",
    "install_done_title": "Установка завершена!",
    "install_done_body": "LainuxOS успешно установлена. Извлеките установочный носитель и перезагрузитесь.",
    "install_done_hint": "Enter: Выйти из установщика",

    "vm_title": "УСТАНОВКА ВИРТУАЛЬНОЙ МАШИНЫ",
    "vm_requirements": "Требования: поддержка KVM или виртуализации, 20 ГБ свободного места, 4 ГБ ОЗУ, подключение к интернету",
    "vm_kvm_available": "Ускорение KVM доступно",
    "vm_kvm_missing": "Запуск без ускорения KVM",
    "vm_missing_tools": "Не найдены инструменты QEMU",

    "hw_title": "ИНФОРМАЦИЯ ОБ ОБОРУДОВАНИИ",
    "hw_overview": "Обзор системы",
    "hw_hostname": "Имя хоста",
    "hw_arch": "Архитектура",
    "hw_kernel": "Ядро",
    "hw_cpu": "Процессор",
    "hw_cores": "Ядра",
    "hw_memory": "Память",
    "hw_graphics": "Графика",
    "hw_advanced": "Дополнительно",
    "hw_virt": "Виртуализация",
    "hw_virt_supported": "Виртуализация: Поддерживается",
    "hw_virt_unavailable": "Виртуализация: Недоступна",
    "hw_firmware_uefi": "Прошивка: UEFI",
    "hw_firmware_bios": "Прошивка: Legacy BIOS",
    "hw_uptime": "Время работы",
    "hw_load": "Средняя нагрузка",

    "req_title": "ПРОВЕРКА СИСТЕМНЫХ ТРЕБОВАНИЙ",
    "req_ram": "ОЗУ",
    "req_cores": "Ядра",
    "req_tmp": "Свободно в /tmp",
    "req_ram_warning": "ВНИМАНИЕ: Рекомендуется минимум 1 ГБ ОЗУ",
    "req_cpu_warning": "ВНИМАНИЕ: Рекомендуется двухъядерный процессор",
    "req_disk_warning": "ВНИМАНИЕ: Требуется минимум 2 ГБ свободного места в /tmp",
    "req_missing_tools": "ВНИМАНИЕ: Не найдены инструменты установщика",
    "req_meets": "✓ Система соответствует минимальным требованиям",
    "req_may_not_perform": "⚠ Система может работать нестабильно",

    "config_title": "ВЫБЕРИТЕ КОНФИГУРАЦИЮ",
    "config_saving": "Сохранение конфигурации...",
    "config_saved": "Конфигурация сохранена в",
    "config_save_failed": "Не удалось сохранить конфигурацию",

    "diskinfo_title": "Информация о дисках",

    "net_title": "Состояние сети",
    "net_checking": "Проверка сети...",
    "net_connected": "Подключено ✓",
    "net_offline": "Нет подключения ✗",
    "net_public_ip": "Публичный IP",
    "net_hint": "Enter: Проверить снова • b: Назад",

    "diag_title": "Диагностика сети",
    "diag_interface": "Активный интерфейс",
    "diag_gateway": "Шлюз",
    "diag_no_interface": "Активный интерфейс не найден",

    "exit_prompt": "Выйти из установщика Lainux?",
    "exit_type_to_confirm": "Введите для подтверждения:",
    "exit_phrase": "ВЫХОД",
    "exit_hint": "Enter: Подтвердить • Esc: Назад",
}


@dataclass(frozen=True)
class PhraseTable:
    """Immutable locale -> named display strings mapping."""

    tables: Mapping[str, Mapping[str, str]]
    default_locale: str = DEFAULT_LOCALE
    _frozen: Mapping[str, Mapping[str, str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.default_locale not in self.tables:
            raise ValueError(f"Default locale {self.default_locale!r} has no table.")
        frozen = {code: MappingProxyType(dict(strings)) for code, strings in self.tables.items()}
        object.__setattr__(self, "_frozen", MappingProxyType(frozen))

    @property
    def locales(self) -> tuple[str, ...]:
        return tuple(self._frozen)

    def lookup(self, locale: str) -> Mapping[str, str]:
        return self._frozen.get(locale) or self._frozen[self.default_locale]

    def text(self, locale: str, name: str) -> str:
        return self.lookup(locale)[name]

    def missing(self, required: Iterable[str]) -> list[tuple[str, str]]:
        names = sorted(set(required))
        return [
            (code, name)
            for code, strings in self._frozen.items()
            for name in names
            if not strings.get(name)
        ]


def validate_phrases(table: PhraseTable, required: Iterable[str]) -> None:
    missing = table.missing(required)
    if missing:
        raise PhraseError(missing)


DEFAULT_PHRASES = PhraseTable({"EN": _EN, "RU": _RU})
