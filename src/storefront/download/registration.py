"""Digital file registration — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.download.file import DigitalFile


@storefront.command(part_of="DigitalFile")
class RegisterDigitalFile:
    file_name = String(required=True, max_length=255, sanitize=False)
    file_path = String(max_length=1024, sanitize=False)
    external_url = String(max_length=2048, sanitize=False)
    mime_type = String(max_length=127)
    file_size = Integer(min_value=0)
    item_id = Identifier()


@storefront.command_handler(part_of=DigitalFile)
class RegisterDigitalFileHandler:
    @handle(RegisterDigitalFile)
    def register(self, command):
        digital_file = DigitalFile.register(
            file_name=command.file_name,
            file_path=command.file_path,
            external_url=command.external_url,
            mime_type=command.mime_type,
            file_size=command.file_size,
            item_id=command.item_id,
        )
        current_domain.repository_for(DigitalFile).add(digital_file)
        return str(digital_file.id)
