"""
Silence Cutter - Configuration Manager
======================================
จัดการ Settings และ Presets (JSON)
"""

import json
from typing import Dict, Any, List, Optional
from dataclasses import asdict, fields
from pathlib import Path

from constants import (
    ProcessingConfig, SilenceOptions, EnhanceOptions, OutputSettings,
    DEFAULT_PRESETS, OUTPUT_FORMATS
)

# Config version - bump this when adding new fields
# v2: Added output.mp3_bitrate
CONFIG_VERSION = 2

# default config dir อยู่ใต้ home ของ user (ไม่ใช่ directory ของ module)
DEFAULT_CONFIG_DIRNAME = ".silence-cutter"


class ConfigManager:
    """
    Configuration & Preset Manager
    ==============================
    - Load/Save user settings
    - Load/Save/List presets
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: directory สำหรับเก็บ config และ presets
                       (default: ~/.silence-cutter)
        """
        if config_dir is None:
            config_dir = Path.home() / DEFAULT_CONFIG_DIRNAME

        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / "settings.json"
        self.presets_dir = self.config_dir / "presets"

        # Ensure presets directory exists
        self.presets_dir.mkdir(parents=True, exist_ok=True)

        # Initialize default presets if not exist
        self._init_default_presets()

    def _init_default_presets(self) -> None:
        """สร้าง preset เริ่มต้นถ้ายังไม่มี"""
        for preset_id, preset_data in DEFAULT_PRESETS.items():
            preset_file = self.presets_dir / f"{preset_id}.json"
            if not preset_file.exists():
                self.save_preset(
                    preset_id,
                    preset_data['name'],
                    preset_data['description'],
                    preset_data['config']
                )

    # ==================== User Settings ====================

    def load_config(self) -> Dict[str, Any]:
        """
        โหลด user settings

        Returns:
            Dict containing:
            - config: ProcessingConfig
            - last_output_folder: str
            - last_preset: str
        """
        default = {
            'config': ProcessingConfig(),
            'last_output_folder': '',
            'last_preset': 'default'
        }

        if not self.config_file.exists():
            return default

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"Error loading config: {e}")
            return default

        # Check config version - reset if outdated
        saved_version = data.get('version', 0)
        if saved_version < CONFIG_VERSION:
            print(f"Config version outdated ({saved_version} < {CONFIG_VERSION}), resetting...")
            return default

        result = default.copy()
        result['config'] = self._dict_to_config(data.get('config', {}))
        result['last_output_folder'] = data.get('last_output_folder', '')
        result['last_preset'] = data.get('last_preset', 'default')
        return result

    def save_config(
        self,
        config: ProcessingConfig,
        last_output_folder: str = '',
        last_preset: str = 'default'
    ) -> bool:
        """บันทึก user settings"""
        try:
            data = {
                'version': CONFIG_VERSION,
                'config': self._config_to_dict(config),
                'last_output_folder': last_output_folder,
                'last_preset': last_preset
            }

            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            return True
        except OSError as e:
            print(f"Error saving config: {e}")
            return False

    # ==================== Presets ====================

    def list_presets(self) -> List[Dict[str, str]]:
        """
        รายการ presets ทั้งหมด

        Returns:
            List of dicts with 'id', 'name', 'description'
        """
        presets = []

        for preset_file in sorted(self.presets_dir.glob("*.json")):
            try:
                with open(preset_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, ValueError):
                continue
            presets.append({
                'id': preset_file.stem,
                'name': data.get('name', preset_file.stem),
                'description': data.get('description', '')
            })

        return presets

    def load_preset(self, preset_id: str) -> Optional[ProcessingConfig]:
        """
        โหลด preset

        Args:
            preset_id: ID ของ preset (ชื่อไฟล์ไม่รวม .json)

        Returns:
            ProcessingConfig หรือ None ถ้าไม่พบ
        """
        preset_file = self.presets_dir / f"{preset_id}.json"

        if not preset_file.exists():
            return None

        try:
            with open(preset_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        return self._dict_to_config(data.get('config', {}))

    def save_preset(
        self,
        preset_id: str,
        name: str,
        description: str,
        config: ProcessingConfig
    ) -> bool:
        """
        บันทึก preset

        Args:
            preset_id: ID ของ preset (จะเป็นชื่อไฟล์)
            name: ชื่อแสดงผล
            description: คำอธิบาย
            config: การตั้งค่า

        Returns:
            True ถ้าสำเร็จ
        """
        try:
            preset_file = self.presets_dir / f"{preset_id}.json"

            data = {
                'name': name,
                'description': description,
                'config': self._config_to_dict(config)
            }

            with open(preset_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            return True
        except OSError as e:
            print(f"Error saving preset: {e}")
            return False

    def delete_preset(self, preset_id: str) -> bool:
        """ลบ preset (ยกเว้น built-in presets)"""
        if preset_id in DEFAULT_PRESETS:
            return False  # Cannot delete built-in presets

        preset_file = self.presets_dir / f"{preset_id}.json"
        try:
            if preset_file.exists():
                preset_file.unlink()
            return True
        except OSError:
            return False

    # ==================== Helpers ====================

    def _config_to_dict(self, config: ProcessingConfig) -> Dict[str, Any]:
        """แปลง ProcessingConfig เป็น dict สำหรับ JSON"""
        return asdict(config)

    def _dict_to_config(self, data: Dict[str, Any]) -> ProcessingConfig:
        """แปลง dict กลับเป็น ProcessingConfig"""

        def safe_create(cls, data_dict):
            """สร้าง dataclass จาก dict โดยกรอง field ที่ไม่รู้จักออก"""
            if not data_dict:
                return cls()
            valid_fields = {f.name for f in fields(cls)}
            filtered = {k: v for k, v in data_dict.items() if k in valid_fields}
            return cls(**filtered)

        output = safe_create(OutputSettings, data.get('output', {}))
        if output.format not in OUTPUT_FORMATS:
            output.format = 'wav'

        return ProcessingConfig(
            silence_enabled=bool(data.get('silence_enabled', True)),
            silence=safe_create(SilenceOptions, data.get('silence', {})),
            enhance_enabled=bool(data.get('enhance_enabled', False)),
            enhance=safe_create(EnhanceOptions, data.get('enhance', {})),
            output=output
        )
